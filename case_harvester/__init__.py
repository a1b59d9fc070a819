"""
case_harvester - discovers, extracts and structures image-prompt usage cases
from READMEs, articles and search snippets.
"""

__version__ = "0.3.0"
