"""
Pipeline stages for the Tubely upload endpoints.

- staging: Scoped scratch-file staging of inbound uploads
- media_tools: Async runner for ffprobe/ffmpeg with timeouts
- inspection: ffprobe inspection and aspect ratio classification
- transform: Fast-start rewrite of MP4 containers
- keys: Random storage key generation
- publishers: S3, CDN, local disk, data URL and in-memory destinations
- video_repository: MongoDB access to video records
- upload_pipeline: The orchestrator tying the stages together
"""
