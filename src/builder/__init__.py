"""Transactional image build engine.

This module runs build instructions as reversible steps inside one
transaction and orchestrates complete jail image builds.
"""
