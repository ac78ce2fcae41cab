"""Analytics computed from the stored snapshots. Nothing here is cached, every call reads the partitions."""


class InvalidQueryError(ValueError):
    pass
