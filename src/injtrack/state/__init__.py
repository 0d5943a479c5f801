"""State layer: the account session, the local series store and the merge engine."""
