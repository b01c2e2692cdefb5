# WORKFLOW: ETL (Extract, Transform, Load) package for POS export ingestion.
# Used by: Upload endpoint, job worker, ingest CLI script
# Modules include:
# 1. headers.py - Header normalization, synonym table and header validation
# 2. coercers.py - Tolerant date, numeric and item-code coercion
# 3. canonical.py - Fact record construction, canonical form and content hash
# 4. parsers.py - CSV and workbook parsing to canonical rows
# 5. pipeline.py - Batched, deduplicated loading into the sales store
#
# ETL flow: CSV/XLSB -> Parse -> Normalize headers -> Coerce + hash -> Insert-or-ignore -> Audit

"""
ETL package for POS export ingestion.
"""
