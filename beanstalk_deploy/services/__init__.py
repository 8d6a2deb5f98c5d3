"""
Services package.

Contains the AWS transport, status client, deployment and supervision services.
"""
