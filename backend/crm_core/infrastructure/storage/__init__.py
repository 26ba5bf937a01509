"""Storage backends"""
