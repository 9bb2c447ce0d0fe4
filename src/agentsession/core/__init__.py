"""Core collaborators shared by the executors."""
