"""Test suite for the request workflow backend"""
