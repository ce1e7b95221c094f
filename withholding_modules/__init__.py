"""
Withholding Modules.

ERP glue over the withholding kernel and engines:

- ledger: read-only mirror of the host-ledger records (orders, lines,
  taxes, partners) and the gateway that returns them as frozen DTOs.
- withholding: withholding reference data, the municipal and POS VAT
  evaluation strategies, payment-reference management and the service
  that dispatches host document events to them.
"""
