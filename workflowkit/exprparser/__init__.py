"""Parsing of workflow expressions, their value rules and built-in functions."""