"""Memberships domain - Package purchases and appointment credits"""
