"""Appointments domain - Booking, availability and cancellation policy"""
