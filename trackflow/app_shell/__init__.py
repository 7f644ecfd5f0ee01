# Operator entry points.
