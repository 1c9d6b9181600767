"""Salon booking and commerce API"""
