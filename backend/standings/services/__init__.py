"""
Services Layer

Pure standings logic that:
- Accepts already-fetched domain inputs (rosters, matches, rule chains)
- Returns freshly built results (standings, tie-break traces)
- Does NOT depend on HTTP request/response objects
- Does NOT perform I/O or keep state between calls
"""
