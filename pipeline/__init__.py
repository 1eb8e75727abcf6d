"""Pipeline components.

This package contains the XML schema mapper and the delimited writer/reader
for the intermediate ``<id>_eventlog.csv`` file.
"""
