"""Data model for workflows, actions, step results and the github context."""