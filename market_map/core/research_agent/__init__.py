"""
Research agent package.

Generation with model fallback, plan-change classification, structured
output parsing and the citation validation/repair pipeline. Import the
submodules directly.
"""
