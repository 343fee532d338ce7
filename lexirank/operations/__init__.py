"""
Operations Layer

Pure business rules that do not own a database session:
- placement: adaptive placement state machine and its async driver
- profile_guard: validation of client-supplied placement records

Services call into these and handle persistence themselves.
"""
