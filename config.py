from dataclasses import dataclass, field
from typing import List
import yaml
from pathlib import Path


@dataclass
class EncoderConfig:
    """Configuration for the SigLIP2 encoder"""
    model_name: str = "google/siglip2-base-patch16-224"
    use_gpu: bool = True
    max_token_length: int = 64
    image_size: int = 224
    feature_dim: int = 768


@dataclass
class SearchConfig:
    """Configuration for similarity search"""
    top_k: int = 5


@dataclass
class IndexConfig:
    """Configuration for building and storing the embedding index"""
    images_dir: str = "data/images"
    index_path: str = "data/image_embeddings.bin"
    extensions: List[str] = field(
        default_factory=lambda: ['.jpg', '.jpeg', '.png']
    )
    recursive: bool = False
    max_vector_length: int = 65536


@dataclass
class SystemConfig:
    """System-wide configuration"""
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Encoder
    encoder: EncoderConfig = field(default_factory=EncoderConfig)

    # Similarity search
    search: SearchConfig = field(default_factory=SearchConfig)

    # Embedding index
    index: IndexConfig = field(default_factory=IndexConfig)

    def save(self, path: str = "config.yaml"):
        """Save configuration to YAML file"""
        config_dict = {
            'log_level': self.log_level,
            'log_dir': self.log_dir,
            'encoder': {
                'model_name': self.encoder.model_name,
                'use_gpu': self.encoder.use_gpu,
                'max_token_length': self.encoder.max_token_length,
                'image_size': self.encoder.image_size,
                'feature_dim': self.encoder.feature_dim
            },
            'search': {
                'top_k': self.search.top_k
            },
            'index': {
                'images_dir': self.index.images_dir,
                'index_path': self.index.index_path,
                'extensions': list(self.index.extensions),
                'recursive': self.index.recursive,
                'max_vector_length': self.index.max_vector_length
            }
        }

        with open(path, 'w') as f:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2)

    @classmethod
    def load(cls, path: str = "config.yaml") -> 'SystemConfig':
        """Load configuration from YAML file"""
        if not Path(path).exists():
            return cls()  # Return default config

        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        config = cls()

        # Load system settings
        config.log_level = config_dict.get('log_level', config.log_level)
        config.log_dir = config_dict.get('log_dir', config.log_dir)

        # Load encoder settings
        if 'encoder' in config_dict:
            enc = config_dict['encoder']
            config.encoder = EncoderConfig(
                model_name=enc.get('model_name', config.encoder.model_name),
                use_gpu=enc.get('use_gpu', config.encoder.use_gpu),
                max_token_length=enc.get('max_token_length', config.encoder.max_token_length),
                image_size=enc.get('image_size', config.encoder.image_size),
                feature_dim=enc.get('feature_dim', config.encoder.feature_dim)
            )

        # Load search settings
        if 'search' in config_dict:
            ss = config_dict['search']
            config.search = SearchConfig(
                top_k=ss.get('top_k', config.search.top_k)
            )

        # Load index settings
        if 'index' in config_dict:
            ix = config_dict['index']
            config.index = IndexConfig(
                images_dir=ix.get('images_dir', config.index.images_dir),
                index_path=ix.get('index_path', config.index.index_path),
                extensions=ix.get('extensions', config.index.extensions),
                recursive=ix.get('recursive', config.index.recursive),
                max_vector_length=ix.get('max_vector_length', config.index.max_vector_length)
            )

        return config
