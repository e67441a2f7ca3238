"""
MSK Clinical Decision Support - Diagnosis Decision Engine

Symptom intake graphs, heuristic temporal diagnosis and clinician-guided
confirmatory testing for musculoskeletal complaints.
"""
__version__ = "1.0.0"
