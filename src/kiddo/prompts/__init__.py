"""Centralized prompts for the generation pipeline.

- content_prompts.py: reading content requests and illustration styling
"""
