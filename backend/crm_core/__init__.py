"""Comercial access control and campaign batch core"""
