"""Cart domain - Cart lines, totals and discount codes"""
