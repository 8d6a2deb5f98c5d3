"""
beanstalk-deploy.

Deploys a container image to AWS Elastic Beanstalk and supervises the
environment until the new version is live and healthy.
"""

__version__ = "1.0.0"
