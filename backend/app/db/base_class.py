from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# BIGINT primary keys on MySQL; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntegerPK = BigInteger().with_variant(Integer(), "sqlite")
