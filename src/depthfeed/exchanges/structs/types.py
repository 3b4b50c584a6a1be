from typing import NewType, Union
from decimal import Decimal

CurrencyCode = NewType('CurrencyCode', str)
SourceId = NewType('SourceId', str)

# Raw numeric values as exchanges deliver them before normalization
RawNumber = Union[str, int, float, Decimal]
