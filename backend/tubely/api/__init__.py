"""
Tubely API Package.

    - v1/: Upload endpoints mounted under /api
        - videos.py: video/thumbnail uploads and record read
        - blobs.py: files published in memory mode
"""
