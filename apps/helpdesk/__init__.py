"""Support ticket lifecycle service."""
