"""
Workflow modules: concrete business workflows assembled from the kernel's
transition table, guard registry and engine.
"""
