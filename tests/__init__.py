"""
Colorado WQ Test Suite

Tests organized by pipeline stage:
- test_catalogs.py — site catalog, parameter aliases, config
- test_wqp.py — portal client (mocked HTTP)
- test_cleaning.py — cleaner + unit harmonizer
- test_aggregate.py — daily and annual aggregation
- test_reshape.py — wide pivot and melt round-trip
- test_modeling.py — per-group trend fits and ranking
- test_tasks.py — end-to-end with a fake portal, CLI
"""
