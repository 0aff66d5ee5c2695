"""newstracker — keyword news tracking with live push updates.

Subscribers register interest in a search keyword; one tracker per
keyword polls the upstream news-search API on a schedule, detects new
articles, and fans the changes out to every listener of that keyword.
"""

__version__ = "0.1.0"
