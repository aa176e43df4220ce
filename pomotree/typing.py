"""Type aliases shared by pomotree modules."""
from typing import Optional

# identifier of an object in a JSON configuration, None when anonymous
ID = Optional[str]
