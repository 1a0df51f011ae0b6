"""Journey services: retry policy, routing, sequence building and the state machine."""
