"""Domain packages - layered schemas/repository/service/router per resource"""
