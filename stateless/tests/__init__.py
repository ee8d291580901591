"""
Test Suite for the Stateless Ledger Simulation
"""
