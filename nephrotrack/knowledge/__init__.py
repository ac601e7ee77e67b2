"""
NephroTrack knowledge base.

Contains the clinical and simulation reference data:
- KDIGO GFR / albuminuria thresholds and the risk matrix
- Synthetic progression policy (progression/policy.yaml)
"""
