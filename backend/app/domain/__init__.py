"""
Pure domain rules: lifecycle states, scan tokens and achievement criteria.
Nothing in this package touches the database.
"""
