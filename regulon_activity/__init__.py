"""
regulon_activity: Transcription factor and pathway activity inference
from expression matrices with the weighted-mean (wmean) enrichment method.

Analyses:
    1. activity_inference — end-to-end scoring pipeline and CLI
    2. wmean              — wmean / norm_wmean / corr_wmean scoring
    3. regulons           — network validation and sparse regulon weights
    4. results            — wide pivots and top-source rankings
    5. single_cell        — scoring AnnData objects in place
    6. datasets           — toy expression matrix and network
"""

__version__ = "0.1.0"
