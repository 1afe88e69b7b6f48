"""Domain services. Instances are wired together in ``draftboard.container``."""
