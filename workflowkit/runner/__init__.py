"""Handling of workflow commands emitted by running steps."""