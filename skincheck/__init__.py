"""
SkinCheck Backend

Risk triage for skin lesions from a photograph and a short symptom
checklist. Combines an image classifier with weighted symptom scoring
into a SAFE / CAUTION / DANGER traffic-light result.
"""

__version__ = "1.0.0"
