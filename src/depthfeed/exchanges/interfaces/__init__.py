from .market_data_source import MarketDataSource

__all__ = ['MarketDataSource']
