"""
Private Markets Intelligence

Natural-language querying and relationship inference over a private-markets
knowledge graph of funds, companies and people.
"""

__version__ = "1.0.0"
__author__ = "Private Markets Intelligence Team"
