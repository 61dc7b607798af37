"""rulesim - rule condition simulation engine.

Evaluates the all/any/not condition tree of a rule against facts resolved
for a file, a whole project, or ad-hoc content, and reports both the
trigger decision and a per-condition diagnostic trace.
"""

__version__ = "0.1.0"
