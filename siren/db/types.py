from sqlalchemy import BigInteger, Integer

# SQLite only supports AUTOINCREMENT on INTEGER PRIMARY KEY, so BigInteger
# columns fall back to Integer there to keep the test database usable.
BIGINT = BigInteger().with_variant(Integer, "sqlite")
