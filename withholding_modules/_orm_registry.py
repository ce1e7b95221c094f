"""
Module ORM Registry (``withholding_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before
``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily by
``withholding_kernel.db.engine.create_tables`` and by ``tests/conftest.py``.
"""


def import_all_orm_models() -> None:
    """Import every ``withholding_modules.*.orm`` module to register ORM models.

    The ledger mirror references withholding rate tables and the withholding
    tables reference ledger orders, so both must be registered together.

    This function is idempotent -- repeated calls are harmless.
    """
    import withholding_modules.ledger.orm  # noqa: F401
    import withholding_modules.withholding.orm  # noqa: F401
