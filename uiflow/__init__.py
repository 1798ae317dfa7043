"""UI flow prototype pipeline: phase gates, validators and snapshot capture.

Subpackages:
- state: Workspace document persistence (current-process.json)
- gates: Per-phase exit validation, post-generation gate, phase transitions
- validators: Consistency, template variable, index data, navigation, iframe src
- capture: Headless browser snapshot capture with retry and error ledger
"""

__version__ = "2.1.0"
