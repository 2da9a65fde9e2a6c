"""Provider-neutral object storage facade over S3, GCS, Azure Blob and local disks."""
