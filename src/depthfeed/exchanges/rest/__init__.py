from .base_rest import RestMarketDataSource

__all__ = ['RestMarketDataSource']
