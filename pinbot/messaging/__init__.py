"""Event dispatch -- transport events, the observer chain and the command router."""
