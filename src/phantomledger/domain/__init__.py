"""Phantom reaction accounting: policy, gate, notification suppression, reconciliation."""
