"""Module that defines the database models of the tables owned by the
indexer.

"""
import datetime
import typing

import sqlalchemy
import sqlalchemy.orm


class Base(sqlalchemy.orm.DeclarativeBase):
    """Base class used for declarative class definitions. The function
    and mapping tables of the table registry share its metadata.

    """
    pass


class TransactionModel(Base):
    """Model class for "transactions". Each instance is an indexed
    Aleo transaction.

    """
    __tablename__ = 'transactions'

    id: sqlalchemy.orm.Mapped[str] = sqlalchemy.orm.mapped_column(
        sqlalchemy.String(255), primary_key=True)
    program_id: sqlalchemy.orm.Mapped[str] = sqlalchemy.orm.mapped_column(
        sqlalchemy.Text)
    function_name: sqlalchemy.orm.Mapped[str] = sqlalchemy.orm.mapped_column(
        sqlalchemy.Text)
    block_height: sqlalchemy.orm.Mapped[int] = sqlalchemy.orm.mapped_column(
        sqlalchemy.BigInteger, index=True)
    timestamp: sqlalchemy.orm.Mapped[
        datetime.datetime] = sqlalchemy.orm.mapped_column(
            sqlalchemy.DateTime(timezone=True))
    inserted_at: sqlalchemy.orm.Mapped[
        datetime.datetime] = sqlalchemy.orm.mapped_column(
            sqlalchemy.DateTime(timezone=True))
    raw: sqlalchemy.orm.Mapped[typing.Optional[dict]] = \
        sqlalchemy.orm.mapped_column(sqlalchemy.JSON)


class IndexerStateModel(Base):
    """Model class for "indexer_state". Each instance is the progress
    counter of one program function: the number of its transactions
    already durably processed.

    """
    __tablename__ = 'indexer_state'

    program_id: sqlalchemy.orm.Mapped[str] = sqlalchemy.orm.mapped_column(
        sqlalchemy.String(255), primary_key=True)
    function_name: sqlalchemy.orm.Mapped[str] = sqlalchemy.orm.mapped_column(
        sqlalchemy.String(255), primary_key=True)
    processed_count: sqlalchemy.orm.Mapped[
        int] = sqlalchemy.orm.mapped_column(default=0)
    last_updated: sqlalchemy.orm.Mapped[
        datetime.datetime] = sqlalchemy.orm.mapped_column(
            sqlalchemy.DateTime(timezone=True))
