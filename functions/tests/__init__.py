"""
Test Suite for the TMT Production Tracker

- unit/: pure logic in tmt_shared (costing, task generation, filters,
  row mapping) and the gviz / Apps Script clients with a mocked session
- integration/: each fn_* handler driven end to end against fake clients
- conftest.py: row factories, fake clients and request builders
"""
